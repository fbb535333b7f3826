"""Terminal user interface: view model and rendering."""
