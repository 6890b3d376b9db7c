"""site_mapper.crawler: page fetching, resource extraction and traversal."""
