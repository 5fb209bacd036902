"""bizsignal gateway -- HTTP 接口（FastAPI）"""
