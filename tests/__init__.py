"""
ai-tasks test suite.

Store tests run against fakeredis, so no Valkey server is needed.
"""
