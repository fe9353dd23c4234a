"""数据访问层(Repository).

只负责查询与写入, 不做业务编排.
"""
