"""Request-independent building blocks: paths, rendering, documents."""
