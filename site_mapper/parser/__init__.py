"""site_mapper.parser: HTML and sitemap XML parsing."""
