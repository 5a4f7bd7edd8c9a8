"""Guide-based email slicing: regions, naming, export orchestration and HTML templating."""
