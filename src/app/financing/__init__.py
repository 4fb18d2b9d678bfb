"""Deal financing module -- lenders, applications, documents, conditions, and activity."""
