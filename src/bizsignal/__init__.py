"""bizsignal -- 跨模块业务事件检测与清单任务生成引擎"""

__version__ = "0.1.0"
