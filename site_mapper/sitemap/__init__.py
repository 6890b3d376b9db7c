"""site_mapper.sitemap: priority, lastmod, alternates, XML writing and ping."""
