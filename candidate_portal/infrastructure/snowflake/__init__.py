"""
Snowflake persistence for candidate metadata.
"""
