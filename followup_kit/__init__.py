"""Follow-Up Kit: deferred follow-up messaging for a support chat."""
