"""Dictionary loading for Kanakey."""
