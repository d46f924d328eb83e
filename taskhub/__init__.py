"""TaskHub core: auth, storage engines and task/user rules."""
