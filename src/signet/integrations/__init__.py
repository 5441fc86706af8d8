"""External integrations - CLOB API, wallet signing, audit sync."""
