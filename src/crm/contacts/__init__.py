"""Contact module -- schemas and the ContactDirectory for contact CRUD and lookups."""
