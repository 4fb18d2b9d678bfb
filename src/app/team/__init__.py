"""Deal team module -- members, role permission defaults, partner access, and access resolution."""
