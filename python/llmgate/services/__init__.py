"""Gateway services: provider access, credential crypto, and log redaction."""
