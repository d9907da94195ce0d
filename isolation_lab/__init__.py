"""isolation-lab - 以固定交错顺序驱动并发事务，观察隔离级别异常"""

__version__ = "0.1.0"
