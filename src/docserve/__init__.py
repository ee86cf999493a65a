"""docserve - serve a directory over HTTP with on-the-fly Markdown rendering."""
