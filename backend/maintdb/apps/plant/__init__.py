"""Plant app: departments and the machines that belong to them."""
