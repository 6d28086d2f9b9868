"""TaskPulse Core -- 领域模型、配置与 SQLite 任务存储"""
