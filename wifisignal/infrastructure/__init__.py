"""wifisignal Infrastructure - Platform backends."""
