"""usage 采集服务: schema 初始化、单对象 upsert、清理与完整采集周期."""
