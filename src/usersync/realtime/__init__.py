"""Realtime store — live, filtered document queries.

Learn: Data reaches the realtime list through one path only:
1. A writer inserts a document (store.insert)
2. The store announces the change to every open watch()
3. Each watch re-reads its filtered result set and pushes it upstream
4. The subscription manager hands that set to the view's callback

The write path never touches the view directly, so the list updates the
same way whether the insert came from this process or another one.
"""
