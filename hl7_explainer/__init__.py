"""Rate-limited, metered gateway that explains HL7 messages with an LLM."""

__version__ = "1.0.0"
