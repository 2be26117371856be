"""chromever - install, launch and switch between Chrome versions."""
