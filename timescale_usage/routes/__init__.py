"""HTTP 路由."""
