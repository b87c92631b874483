"""Qt integration for running reviews off the GUI thread."""
