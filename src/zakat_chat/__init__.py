"""Conversational front-end for recording and managing zakat reports."""
