"""bizsignal core -- 事件检测、任务生成与持久化

引擎层：规则注册表、模板目录、检测器、生成器、事件存储与模块监听器。
"""
