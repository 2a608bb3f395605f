"""Terminal rendering for conversations and the bash transcript."""
