"""
运单号 / 单号生成器
生产环境使用随机码，测试环境可替换为确定性序列
"""
import itertools
import uuid


class RandomCodeGenerator:
    """随机大写码 (uuid4 十六进制截取)"""

    def __init__(self, length=10):
        if not 0 < length <= 32:
            raise ValueError('length must be between 1 and 32')
        self.length = length

    def generate(self):
        return uuid.uuid4().hex[:self.length].upper()


class SequenceCodeGenerator:
    """确定性序列：PREFIX0000000001, PREFIX0000000002 ..."""

    def __init__(self, prefix='TRK', length=10, start=1):
        self.prefix = prefix.upper()
        self.length = length
        self._counter = itertools.count(start)

    def generate(self):
        digits = max(self.length - len(self.prefix), 1)
        return f"{self.prefix}{next(self._counter):0{digits}d}"
