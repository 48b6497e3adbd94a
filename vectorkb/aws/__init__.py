"""AWS client construction and error helpers."""
