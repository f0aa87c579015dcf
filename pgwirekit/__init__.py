"""PostgreSQL wire protocol building blocks: messages, value codecs, SCRAM, escaping and catalog parsing."""

__version__ = "0.1.0"