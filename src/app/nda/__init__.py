"""Company NDA module -- acceptance, expiry reminders, and extension links."""
