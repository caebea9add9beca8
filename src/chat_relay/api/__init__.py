"""HTTP and push API for the chat relay."""
