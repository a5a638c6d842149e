"""pf (packet filter) redirect rules and anchor control."""
