# Mock cart REST backend
