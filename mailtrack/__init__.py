"""mailtrack — provision and configure an email-tracking worker backend."""

__version__ = "0.1.0"
