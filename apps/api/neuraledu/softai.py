import random, re
from typing import Dict, List, Optional

SENTENCE_SPLIT=re.compile(r"[.!?]\s+")
MAX_BULLETS=8; MIN_BULLET=20; SHORT_LEN=95
MAX_QUESTIONS=5; MIN_QUIZ_SENTENCE=25; MIN_WORD=4; MIN_ANSWER=3; PROMPT_LEN=65
FILLERS=("concept", "method", "theory", "process")
NO_SUMMARY="No document content to summarize. Ask your teacher to upload a .txt file."
NO_QUIZ="Not enough content for quiz generation."

def _qualifies(w:str)->bool:
    return len(w)>MIN_WORD and w[:1].isascii() and w[:1].isalpha()

def _words(text:str)->List[str]:
    return [w for w in text.split() if _qualifies(w)]

def _empty(message:str)->Dict:
    return {"items": [], "empty": True, "message": message}

def summarize(text:str)->Dict:
    units=[s.strip() for s in SENTENCE_SPLIT.split(text or '')]
    units=[s for s in units if len(s)>MIN_BULLET][:MAX_BULLETS]
    if not units: return _empty(NO_SUMMARY)
    items=[{"short": u if len(u)<=SHORT_LEN else u[:SHORT_LEN]+"…",
            "detail": f'This concept covers: "{u}". Understanding this principle is foundational to mastering the overall topic and applying it in practical scenarios.'}
           for u in units]
    return {"items": items, "empty": False, "message": ""}

def build_quiz(text:str, rng:Optional[random.Random]=None)->Dict:
    rng=rng or random.Random()
    text=text or ''
    pool=list(dict.fromkeys(_words(text)))
    sentences=[s for s in SENTENCE_SPLIT.split(text) if len(s)>MIN_QUIZ_SENTENCE]
    questions=[]
    for i, s in enumerate(sentences[:MAX_QUESTIONS]):
        sw=_words(s)
        if not sw: continue
        answer=re.sub(r"[^a-zA-Z]", "", sw[len(sw)//2])
        if len(answer)<MIN_ANSWER: continue
        wrongs=[w for w in pool if w!=answer and len(w)>3][i*4:i*4+3]
        while len(wrongs)<3: wrongs.append(FILLERS[len(wrongs)])
        options=[answer]+wrongs[:3]; rng.shuffle(options)
        questions.append({"prompt": f'Which term best fits: "{s[:PROMPT_LEN]}…"?', "options": options, "answer": answer})
    if not questions: return _empty(NO_QUIZ)
    return {"items": questions, "empty": False, "message": ""}

def generate(text:str, rng:Optional[random.Random]=None)->Dict:
    return {"summary": summarize(text), "quiz": build_quiz(text, rng)}

def verdict(pct:int)->str:
    if pct>=80: return "Excellent!"
    if pct>=50: return "Good effort!"
    return "Keep studying!"

class QuizSheet:
    """Answers given to one generated quiz; each question is scored at most once."""
    def __init__(self, questions:List[Dict]):
        self.questions=questions; self.results:Dict[int,bool]={}
    def answer(self, index:int, option:str)->Dict:
        if index<0 or index>=len(self.questions): raise IndexError(index)
        q=self.questions[index]; first=index not in self.results
        if first: self.results[index]=(option==q['answer'])
        return {"index": index, "correct": self.results[index], "answer": q['answer'], "scored": first}
    @property
    def complete(self)->bool: return bool(self.questions) and len(self.results)==len(self.questions)
    def summary(self)->Optional[Dict]:
        if not self.complete: return None
        correct=sum(1 for v in self.results.values() if v); pct=round(correct/len(self.questions)*100)
        return {"correct": correct, "total": len(self.questions), "percent": pct, "verdict": verdict(pct)}
