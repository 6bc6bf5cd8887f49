"""File scanning for Go source trees."""
