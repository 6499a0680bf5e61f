"""Pure analysis over a published dataset."""
