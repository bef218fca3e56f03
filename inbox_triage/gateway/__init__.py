"""Mail gateway: message types and the collaborator interface."""
