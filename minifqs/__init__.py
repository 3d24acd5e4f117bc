"""miniFQS: convert syllable-aligned FQS scores into ABC notation."""

__version__ = "0.3.0"
