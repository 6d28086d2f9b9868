"""TaskPulse Gateway -- FastAPI 应用（任务 CRUD、webhook 注册、健康检查）"""
