"""Built-in column writers.

Every public module in this package is imported by
`pglogsink.plugins.discover_column_writers`.
"""
