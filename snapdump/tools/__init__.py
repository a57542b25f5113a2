"""
Command-line tools for snapdump.

- dump_cli: Dump a database to a timestamped .sql file
"""
