"""Search pipeline services: API clients, filtering, pagination, caching and the public SearchService."""
