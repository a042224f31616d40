"""Dashboard API: appstate upload, admin list and config editing."""
