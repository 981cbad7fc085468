"""工具活动：调用/结果数据结构与本轮记录器。"""
