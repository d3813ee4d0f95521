"""codesync - mirror a local code tree to a remote server over SSH (rsync), once or on change."""
