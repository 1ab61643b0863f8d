"""Text-generation backend access for the AI tier."""
